import pytest

from bytecode import Chunk
from conftest import compile_source
from errors import JingError, JingRuntimeError, JingTypeError
from intrinsics import install_intrinsics
from registry import IntrinsicRegistry
from vm import VM


@pytest.mark.parametrize(
    "source, expected",
    [
        ("let x = 10; let y = 20; print(x + y);", "30\n"),
        ('let s = "Hello, " + "World!"; print(s);', "Hello, World!\n"),
        ("let i = 0; while i < 3 { print(i); i = i + 1; }", "0\n1\n2\n"),
        ("fn add(a, b) { return a + b; } print(add(5, 3));", "8\n"),
        ("fn f(n) { if n <= 1 { return 1; } return n * f(n - 1); } print(f(5));", "120\n"),
        ("print(true and false); print(true or false);", "false\ntrue\n"),
    ],
)
def test_programs(run, source, expected):
    assert run(source) == expected


def test_number_formatting(run):
    assert run("print(7 / 2); print(-7 % 3); print(10 - 12); print(0.5 * 4);") == "3.5\n-1\n-2\n2\n"


def test_string_coercion_with_plus(run):
    out = run('print("n=" + 1); print(1.5 + "x"); print("b" + true); print("v" + nil);')
    assert out == "n=1\n1.5x\nbtrue\nvnil\n"


def test_string_comparison(run):
    assert run('print("a" < "b"); print("b" <= "a");') == "true\nfalse\n"


def test_equality(run):
    out = run('print(0.1 + 0.2 == 0.3); print(1 == true); print(nil == nil); print("a" != "a");')
    assert out == "true\nfalse\ntrue\nfalse\n"


def test_not_and_bang(run):
    assert run("print(!!nil); print(!!0); print(not false); print(!\"\");") == "false\ntrue\ntrue\nfalse\n"


def test_logical_operators_yield_operands(run):
    assert run('print(nil or "fallback"); print(0 and 5); print(false and 1);') == "fallback\n5\nfalse\n"


def test_short_circuit_skips_the_right_operand(run):
    registry = install_intrinsics(IntrinsicRegistry())
    calls = []

    @registry.register("tick", 0)
    def _tick(args):
        calls.append(1)
        return True

    run("false and tick(); true or tick(); nil and tick();", registry=registry)
    assert calls == []
    run("true and tick(); false or tick();", registry=registry)
    assert len(calls) == 2


@pytest.mark.parametrize(
    "source, message",
    [
        ("1 / 0;", "Division by zero"),
        ("1 % 0;", "Modulo by zero"),
        ("y = 1;", "Undefined variable 'y'"),
        ("print(missing);", "Undefined variable 'missing'"),
        ("let x = 1; x();", "Can only call functions"),
        ("fn f(a) { } f(1, 2);", "Expected 1 arguments but got 2"),
        ("let s = sqrt; s(1, 2);", "Function 'sqrt' expects 1 arguments, got 2"),
        ("sqrt(-1);", "Cannot take square root of negative number"),
    ],
)
def test_runtime_errors(run_vm, source, message):
    with pytest.raises(JingRuntimeError) as exc:
        run_vm(source)
    assert exc.value.message == message


@pytest.mark.parametrize(
    "source, message",
    [
        ("1 + true;", "Cannot add number and bool"),
        ('"a" - 1;', "Cannot subtract string and number"),
        ('-"a";', "Cannot negate string"),
        ('1 < "a";', "Cannot compare number and string"),
        ("nil * 2;", "Cannot multiply nil and number"),
    ],
)
def test_type_errors(run_vm, source, message):
    with pytest.raises(JingTypeError) as exc:
        run_vm(source)
    assert exc.value.message == message
    assert str(exc.value).startswith("Type error: ")


def test_block_scope_is_discarded(run_vm):
    with pytest.raises(JingRuntimeError) as exc:
        run_vm("{ let a = 1; } print(a);")
    assert exc.value.message == "Undefined variable 'a'"


def test_shadowing_and_outer_assignment(run):
    out = run("let x = 1; { let x = 2; print(x); } print(x); { x = 5; } print(x);")
    assert out == "2\n1\n5\n"


def test_assignment_is_an_expression(run):
    assert run("let a = 0; let b = 0; a = b = 3; print(a + b);") == "6\n"


def test_stack_is_empty_after_halt(run_vm):
    vm = run_vm("fn add(a, b) { return a + b; } let r = add(1, 2); if r > 2 { r; } else { nil; } print(r);")
    assert vm.stack == []
    assert vm.frames == []
    assert vm.env.depth == 1
    assert vm.globals["r"] == 3.0


def test_recursion(run):
    src = "fn fib(n) { if n < 2 { return n; } return fib(n - 1) + fib(n - 2); } print(fib(10));"
    assert run(src) == "55\n"


def test_return_from_inside_nested_blocks(run_vm, capsys):
    src = """
    fn find() {
        let i = 0;
        while true {
            if i == 3 { return i; }
            i = i + 1;
        }
    }
    print(find());
    print(find() + 1);
    """
    vm = run_vm(src)
    assert capsys.readouterr().out == "3\n4\n"
    assert vm.env.depth == 1
    assert vm.stack == []


def test_implicit_nil_return(run):
    assert run("fn f() { } print(f()); fn g() { return; } print(g());") == "nil\nnil\n"


def test_call_before_declaration(run):
    assert run("print(later()); fn later() { return 1; }") == "1\n"


def test_functions_do_not_see_caller_locals(run_vm):
    src = "fn peek() { return secret; } fn outer() { let secret = 1; return peek(); } outer();"
    with pytest.raises(JingRuntimeError) as exc:
        run_vm(src)
    assert exc.value.message == "Undefined variable 'secret'"


def test_functions_mutate_globals(run):
    assert run("let count = 0; fn bump() { count = count + 1; } bump(); bump(); print(count);") == "2\n"


def test_parameters_are_local(run):
    assert run("let a = 1; fn f(a) { a = a + 10; return a; } print(f(5)); print(a);") == "15\n1\n"


def test_function_in_block(run):
    assert run("{ fn g() { return 9; } print(g()); }") == "9\n"


def test_function_values_display(run):
    assert run("fn f(a, b) { } print(f); print(print); print(type(f));") == "<fn f(2 args)>\n<intrinsic print>\nfunction\n"


def test_nested_intrinsic_calls(run):
    assert run("print(max(abs(-3), min(1, 2)));") == "3\n"


def test_max_call_depth(run_vm):
    with pytest.raises(JingRuntimeError) as exc:
        run_vm("fn down(n) { return down(n + 1); } down(0);", max_call_depth=50)
    assert exc.value.message == "Max call depth exceeded (50)"


def test_step_limit(run_vm):
    with pytest.raises(JingRuntimeError) as exc:
        run_vm("while true { }", max_steps=1000)
    assert exc.value.message == "Step limit exceeded (possible infinite loop)"


def test_stack_trace_frames(run_vm):
    src = "fn inner() { return 1 / 0; }\nfn outer() { return inner(); }\nouter();"
    with pytest.raises(JingRuntimeError) as exc:
        run_vm(src)
    err = exc.value
    assert [f["func"] for f in err.frames] == ["inner", "outer", "<main>"]
    assert [f["line"] for f in err.frames] == [1, 2, 3]
    text = str(err)
    assert text.startswith("Runtime error: Division by zero\n  ip=")
    assert "  at fn inner (line 1)" in text
    assert "  at fn <main> (line 3)" in text


def test_trace_goes_to_stderr(run_vm, capsys):
    run_vm("let a = 1;", trace=True)
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.splitlines()[0] == "TRACE ip=0000 PUSH_CONST 0 stack=0"


def test_interpret_keeps_state_between_chunks(capsys):
    vm = VM()
    vm.interpret(compile_source("let x = 2; fn double(n) { return n * 2; }"))
    vm.interpret(compile_source("print(double(x));", known_globals=vm.globals.keys()))
    vm.interpret(compile_source("x = double(double(x)); print(x);", known_globals=vm.globals.keys()))
    assert capsys.readouterr().out == "4\n8\n"


def test_reset_after_error_keeps_globals(capsys):
    vm = VM()
    vm.interpret(compile_source("let kept = 1; fn bad() { { return 1 / 0; } }"))
    with pytest.raises(JingRuntimeError):
        vm.interpret(compile_source("bad();"))
    assert vm.frames
    vm.reset()
    assert vm.frames == []
    assert vm.stack == []
    vm.interpret(compile_source("print(kept);"))
    assert capsys.readouterr().out == "1\n"


def test_host_exceptions_are_wrapped():
    registry = IntrinsicRegistry()

    @registry.register("boom", 0)
    def _boom(args):
        raise ValueError("bad input")

    vm = VM(compile_source("boom();", registry=registry), registry=registry)
    with pytest.raises(JingRuntimeError) as exc:
        vm.run()
    assert exc.value.message == "bad input"
    assert isinstance(exc.value.__cause__, ValueError)
    assert exc.value.frames[0]["func"] == "<main>"


def test_unknown_opcode():
    chunk = Chunk()
    chunk.emit("BOGUS")
    with pytest.raises(JingRuntimeError) as exc:
        VM(chunk).run()
    assert exc.value.message == "Unknown opcode: BOGUS"


def test_return_without_frame():
    chunk = Chunk()
    chunk.emit("PUSH_CONST", chunk.add_const(None))
    chunk.emit("RETURN")
    with pytest.raises(JingRuntimeError) as exc:
        VM(chunk).run()
    assert exc.value.message == "Return outside of a function"


def test_pop_on_empty_stack():
    chunk = Chunk()
    chunk.emit("POP")
    with pytest.raises(JingRuntimeError) as exc:
        VM(chunk).run()
    assert exc.value.message == "Stack underflow"


def test_link_rejects_unpatched_jumps():
    chunk = Chunk()
    chunk.emit("JUMP")
    with pytest.raises(JingError):
        VM(chunk)


def test_empty_program(run_vm, capsys):
    for source in ("", "// nothing here\n\n"):
        vm = run_vm(source)
        assert capsys.readouterr().out == ""
        assert vm.stack == []
        assert vm.globals == {}


@pytest.mark.parametrize("a, b", [("1", "2"), ("0.1", "0.2"), ("10000000000", "-3.5"), ("7", "0.3")])
def test_number_addition_commutes(run, a, b):
    assert run(f"print({a} + {b} == {b} + {a});") == "true\n"


def test_string_concatenation_is_associative(run):
    src = 'let a = "ab"; let b = ""; let c = "cd"; print((a + b) + c == a + (b + c)); print(a + b + c);'
    assert run(src) == "true\nabcd\n"


def test_functions_sharing_a_name_in_separate_blocks(run):
    src = "{ fn h() { return 1; } print(h()); } { fn h(x) { return x; } print(h(2)); }"
    assert run(src) == "1\n2\n"


def test_function_value_survives_redeclaration(run):
    src = "fn f() { return 1; } let g = f; fn f(x) { return x; } print(g()); print(f(5));"
    assert run(src) == "1\n5\n"


def test_nested_helpers_with_the_same_name(run):
    src = """
    fn a() { fn helper() { return "a"; } return helper(); }
    fn b() { fn helper(x) { return x; } return helper("b"); }
    print(a());
    print(b());
    """
    assert run(src) == "a\nb\n"


def test_long_operator_chains(run):
    assert run("print(" + " + ".join(["1"] * 1500) + ");") == "1500\n"
    assert run("print(" + " or ".join(["false"] * 1500) + " or 7);") == "7\n"


def test_mixed_logical_chain(run):
    assert run("print(false and missing or 3); print(true or missing and 0);") == "3\ntrue\n"


def test_runtime_error_rendering():
    err = JingRuntimeError("boom", ip=3, frames=[{"func": "f", "line": None, "ip": 3}, {"func": "<main>", "line": 2, "ip": 0}])
    assert str(err) == "Runtime error: boom\n  ip=0003\n  at fn f (ip=3)\n  at fn <main> (line 2)"
