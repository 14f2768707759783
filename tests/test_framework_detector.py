from pathlib import Path
import textwrap

from apiscout.repo.framework_detector import detect_js_framework


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def test_detects_express(tmp_path: Path):
    f = tmp_path / "app.js"
    write(f, "const express = require('express');\nconst app = express();\n")
    framework, confidence = detect_js_framework([str(f)])
    assert framework == "express"
    assert confidence >= 0.3


def test_nest_outweighs_incidental_express(tmp_path: Path):
    a = tmp_path / "main.ts"
    b = tmp_path / "users.controller.ts"
    write(a, "import { NestFactory } from '@nestjs/core';\nimport * as express from 'express';\n")
    write(b, "import { Controller, Get } from '@nestjs/common';\n@Controller('users')\nexport class U {}\n")
    framework, _ = detect_js_framework([str(a), str(b)])
    assert framework == "nest"


def test_default_when_nothing_matches(tmp_path: Path):
    f = tmp_path / "util.js"
    write(f, "module.exports = 1;\n")
    assert detect_js_framework([str(f)]) == ("express", 0.2)
    assert detect_js_framework([]) == ("express", 0.2)
