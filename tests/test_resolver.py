from pathlib import Path
import textwrap

from apiscout.extractors.resolver import (
    HandlerResolver,
    InlineFunction,
    LocalIdentifier,
    MemberReference,
    handler_name,
    handler_reference,
    resolve_module_path,
)
from apiscout.parsing.frontends import load_tree


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def resolve(path: Path, name: str):
    tree = load_tree(path)
    return HandlerResolver().resolve(LocalIdentifier(name), tree)


def fn_name(definition) -> str:
    node = definition.node
    named = node.child_by_field_name("name")
    if named is not None:
        return named.text.decode()
    # arrow functions: name of the enclosing declarator / pair / assignment
    parent = node.parent
    while parent is not None:
        for field in ("name", "key", "left"):
            target = parent.child_by_field_name(field)
            if target is not None:
                return target.text.decode()
        parent = parent.parent
    return ""


def test_local_arrow_and_function_declaration(tmp_path: Path):
    f = tmp_path / "routes.js"
    write(
        f,
        """
        const list = (req, res) => res.json([]);
        function create(req, res) {}
        app.get('/', list);
        """,
    )
    assert fn_name(resolve(f, "list")) == "list"
    assert fn_name(resolve(f, "create")) == "create"
    assert resolve(f, "missing") is None


def test_last_binding_wins(tmp_path: Path):
    f = tmp_path / "routes.js"
    write(
        f,
        """
        var h = function first() {};
        h = 1;
        var h = function second() {};
        """,
    )
    assert resolve(f, "h").node.child_by_field_name("name").text.decode() == "second"


def test_commonjs_exports_named_and_object(tmp_path: Path):
    write(
        tmp_path / "handlers/users.js",
        """
        exports.list = (req, res) => {};
        module.exports.show = function (req, res) {};
        """,
    )
    write(
        tmp_path / "handlers/orders.js",
        """
        function confirm(req, res) {}
        module.exports = {
          confirm,
          cancel: (req, res) => {},
          archive(req, res) {},
        };
        """,
    )
    routes = tmp_path / "routes/index.js"
    write(
        routes,
        """
        const users = require('../handlers/users');
        const { confirm, cancel, archive } = require('../handlers/orders');
        const show = require('../handlers/users').show;
        """,
    )
    tree = load_tree(routes)
    resolver = HandlerResolver()

    found = resolver.resolve(LocalIdentifier("confirm"), tree)
    assert found is not None and found.path == (tmp_path / "handlers/orders.js").resolve()
    assert found.node.type == "function_declaration"

    assert resolver.resolve(LocalIdentifier("cancel"), tree).node.type == "arrow_function"
    assert resolver.resolve(LocalIdentifier("archive"), tree).node.type == "method_definition"
    assert resolver.resolve(LocalIdentifier("show"), tree).node.type == "function_expression"

    member = resolver.resolve(MemberReference("users", "list"), tree)
    assert member is not None and member.path.name == "users.js"


def test_require_of_single_function_module(tmp_path: Path):
    write(tmp_path / "createUser.js", "module.exports = async (req, res) => {};\n")
    write(tmp_path / "routes.js", "const createUser = require('./createUser');\n")
    found = resolve(tmp_path / "routes.js", "createUser")
    assert found is not None and found.node.type == "arrow_function"


def test_esm_named_aliased_and_default_imports(tmp_path: Path):
    write(
        tmp_path / "handlers.mjs",
        """
        export function confirmOrder(req, res) {}
        export const cancelOrder = (req, res) => {};
        export default function listOrders(req, res) {}
        """,
    )
    routes = tmp_path / "routes.mjs"
    write(
        routes,
        """
        import list, { confirmOrder, cancelOrder as cancel } from './handlers.mjs';
        """,
    )
    assert fn_name(resolve(routes, "confirmOrder")) == "confirmOrder"
    assert fn_name(resolve(routes, "cancel")) == "cancelOrder"
    assert fn_name(resolve(routes, "list")) == "listOrders"


def test_typescript_import_without_extension(tmp_path: Path):
    write(
        tmp_path / "src/handlers/index.ts",
        """
        export const health = async (req: Request, res: Response): Promise<void> => {
          res.send('ok');
        };
        """,
    )
    routes = tmp_path / "src/routes.ts"
    write(routes, "import { health } from './handlers';\n")
    found = resolve(routes, "health")
    assert found is not None and found.path.name == "index.ts"


def test_reexports_are_followed(tmp_path: Path):
    write(tmp_path / "impl.js", "exports.ping = (req, res) => {};\n")
    write(tmp_path / "barrel.js", "module.exports = require('./impl');\n")
    write(tmp_path / "esm/impl.mjs", "export function pong(req, res) {}\n")
    write(tmp_path / "esm/barrel.mjs", "export * from './impl.mjs';\nexport { pong as pang } from './impl.mjs';\n")
    write(tmp_path / "routes.js", "const { ping } = require('./barrel');\n")
    write(tmp_path / "esm/routes.mjs", "import { pong, pang } from './barrel.mjs';\n")

    assert resolve(tmp_path / "routes.js", "ping").node.type == "arrow_function"
    assert fn_name(resolve(tmp_path / "esm/routes.mjs", "pong")) == "pong"
    assert fn_name(resolve(tmp_path / "esm/routes.mjs", "pang")) == "pong"


def test_circular_reexports_end_unresolved(tmp_path: Path):
    write(tmp_path / "a.js", "module.exports = require('./b');\n")
    write(tmp_path / "b.js", "module.exports = require('./a');\n")
    write(tmp_path / "routes.js", "const { loop } = require('./a');\n")
    assert resolve(tmp_path / "routes.js", "loop") is None


def test_self_alias_cycle_ends_unresolved(tmp_path: Path):
    write(tmp_path / "routes.js", "const a = b;\nconst b = a;\n")
    assert resolve(tmp_path / "routes.js", "a") is None


def test_missing_or_unparsable_import_is_unresolved(tmp_path: Path):
    write(tmp_path / "broken.js", "export function x( {\n")
    write(
        tmp_path / "routes.js",
        """
        const { gone } = require('./nope');
        const { x } = require('./broken');
        const express = require('express');
        """,
    )
    assert resolve(tmp_path / "routes.js", "gone") is None
    assert resolve(tmp_path / "routes.js", "x") is None
    assert resolve(tmp_path / "routes.js", "express") is None


def test_class_methods_via_instance(tmp_path: Path):
    write(
        tmp_path / "controller.js",
        """
        class UserController {
          create(req, res) {}
        }
        module.exports = new UserController();
        """,
    )
    write(tmp_path / "routes.js", "const ctrl = require('./controller');\n")
    tree = load_tree(tmp_path / "routes.js")
    found = HandlerResolver().resolve(MemberReference("ctrl", "create"), tree)
    assert found is not None and found.node.type == "method_definition"


def test_handler_reference_shapes(tmp_path: Path):
    f = tmp_path / "routes.js"
    write(
        f,
        """
        app.get('/a', (req, res) => {});
        app.get('/b', list);
        app.get('/c', ctrl.show);
        app.get('/d', ctrl.show.bind(ctrl));
        app.get('/e', asyncHandler(async (req, res) => {}));
        app.get('/f', catchAsync(create));
        """,
    )
    tree = load_tree(f)
    refs = []

    def visit(node):
        if node.type == "call_expression" and node.child_by_field_name("function").text.decode() == "app.get":
            refs.append(handler_reference(node.child_by_field_name("arguments").named_children[-1]))

    tree.front_end.visit(tree, visit)
    assert isinstance(refs[0], InlineFunction)
    assert refs[1] == LocalIdentifier("list")
    assert refs[2] == MemberReference("ctrl", "show")
    assert refs[3] == MemberReference("ctrl", "show")
    assert isinstance(refs[4], InlineFunction)
    assert refs[5] == LocalIdentifier("create")
    assert [handler_name(r) for r in refs] == [None, "list", "ctrl.show", "ctrl.show", None, "create"]


def test_resolve_module_path_candidates(tmp_path: Path):
    importer = tmp_path / "src/routes.ts"
    write(importer, "")
    write(tmp_path / "src/a.ts", "")
    write(tmp_path / "src/b.js", "")
    write(tmp_path / "src/c/index.ts", "")

    assert resolve_module_path("./a", importer) == (tmp_path / "src/a.ts").resolve()
    assert resolve_module_path("./a.js", importer) == (tmp_path / "src/a.ts").resolve()
    assert resolve_module_path("./b", importer) == (tmp_path / "src/b.js").resolve()
    assert resolve_module_path("./c", importer) == (tmp_path / "src/c/index.ts").resolve()
    assert resolve_module_path("lodash", importer) is None
    assert resolve_module_path("./zzz", importer) is None


def test_directory_specifiers_resolve_to_index_only(tmp_path: Path):
    write(tmp_path / "routes.js", "exports.list = (req, res) => { const { wrong } = req.body; };\n")
    write(tmp_path / "routes/index.js", "exports.list = (req, res) => { const { right } = req.body; };\n")
    importer = tmp_path / "routes/users.js"
    write(importer, "const { list } = require('.');\n")

    index = (tmp_path / "routes/index.js").resolve()
    assert resolve_module_path(".", importer) == index
    assert resolve_module_path("./", importer) == index
    assert resolve_module_path("../routes/", importer) == index
    assert resolve_module_path("../routes", importer) == (tmp_path / "routes.js").resolve()

    found = resolve(importer, "list")
    assert found is not None and found.path == index


def test_exported_require_values_are_followed(tmp_path: Path):
    write(tmp_path / "controllers/create.js", "module.exports = (req, res) => {};\n")
    write(tmp_path / "controllers/remove.js", "exports.remove = function remove(req, res) {};\n")
    write(
        tmp_path / "controllers/index.js",
        """
        module.exports = {
          create: require('./create'),
          destroy: require('./remove').remove,
        };
        """,
    )
    write(tmp_path / "controllers/legacy.js", "exports.update = require('./create');\n")
    routes = tmp_path / "routes.js"
    write(
        routes,
        """
        const ctrl = require('./controllers');
        const { create } = require('./controllers');
        const { update } = require('./controllers/legacy');
        """,
    )
    tree = load_tree(routes)
    resolver = HandlerResolver()

    create = resolver.resolve(LocalIdentifier("create"), tree)
    assert create is not None and create.path.name == "create.js"
    assert resolver.resolve(LocalIdentifier("update"), tree).path.name == "create.js"

    destroy = resolver.resolve(MemberReference("ctrl", "destroy"), tree)
    assert destroy is not None and fn_name(destroy) == "remove"
