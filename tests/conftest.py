import pytest

from compiler import Compiler
from lexer import Lexer
from parser import Parser
from vm import VM


def compile_source(source, registry=None, known_globals=()):
    program = Parser(Lexer(source)).parse()
    return Compiler(registry=registry, known_globals=known_globals).compile(program)


@pytest.fixture
def run_vm():
    """Compile and run a program; returns the VM after HALT."""

    def _run(source, registry=None, **vm_options):
        vm = VM(compile_source(source, registry=registry), registry=registry, **vm_options)
        vm.run()
        return vm

    return _run


@pytest.fixture
def run(run_vm, capsys):
    """Compile and run a program; returns what it printed."""

    def _run(source, registry=None, **vm_options):
        run_vm(source, registry=registry, **vm_options)
        return capsys.readouterr().out

    return _run
