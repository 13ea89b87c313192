"""
Arithmetic programs run by the dual pipeline.

A Program is plain data: named input registers, named plaintext constants,
named random amounts (shift or rotate), and an ordered tuple of
Operations. The same Program is interpreted once over ciphertexts and once
over plaintext slot vectors, so both paths perform exactly the same steps.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from .errors import ConfigurationError, ProgramError


class OpCode(Enum):
    """Slot-wise operations a program step can perform."""

    MUL = "mul"  # target <- a * b (registers)
    ADD = "add"  # target <- a + b
    SUB = "sub"  # target <- a - b
    MUL_CONST = "mul_const"  # target <- a * constant
    ADD_CONST = "add_const"  # target <- a + constant
    COPY = "copy"  # target <- a
    SHIFT = "shift"  # target <- shift(a, amount)
    ROTATE = "rotate"  # target <- rotate(a, amount)
    NEGATE = "negate"  # target <- -a


# (registers read, constants read, needs amount)
_ARITY: Dict[OpCode, Tuple[int, int, bool]] = {
    OpCode.MUL: (2, 0, False),
    OpCode.ADD: (2, 0, False),
    OpCode.SUB: (2, 0, False),
    OpCode.MUL_CONST: (1, 1, False),
    OpCode.ADD_CONST: (1, 1, False),
    OpCode.COPY: (1, 0, False),
    OpCode.SHIFT: (1, 0, True),
    OpCode.ROTATE: (1, 0, True),
    OpCode.NEGATE: (1, 0, False),
}


class AmountKind(Enum):
    SHIFT = "shift"
    ROTATE = "rotate"


@dataclass(frozen=True)
class AmountSpec:
    """A random slot offset drawn per run."""

    name: str
    kind: AmountKind

    def bounds(self, nslots: int) -> Tuple[int, int]:
        """Closed interval the amount is drawn from."""
        if self.kind is AmountKind.SHIFT:
            half = nslots // 2
            return -half, half
        return -(nslots - 1), nslots - 1


@dataclass(frozen=True)
class Operation:
    opcode: OpCode
    target: str
    operands: Tuple[str, ...] = ()
    constant: Optional[str] = None
    amount: Optional[str] = None

    def __str__(self) -> str:
        args = list(self.operands)
        if self.constant is not None:
            args.append(self.constant)
        if self.amount is not None:
            args.append(self.amount)
        return f"{self.target} <- {self.opcode.value}({', '.join(args)})"


@dataclass(frozen=True)
class Program:
    """
    A validated sequence of slot-wise operations.

    `inputs` are the registers holding fresh random vectors; `outputs` are
    the registers checked by the verifier, in report order.
    """

    name: str
    inputs: Tuple[str, ...]
    constants: Tuple[str, ...]
    amounts: Tuple[AmountSpec, ...]
    operations: Tuple[Operation, ...]
    outputs: Tuple[str, ...]

    @property
    def amount_names(self) -> FrozenSet[str]:
        return frozenset(a.name for a in self.amounts)

    @property
    def multiplicative_depth(self) -> int:
        """Longest chain of register-by-register multiplications feeding any output."""
        depth = {name: 0 for name in self.inputs}
        for op in self.operations:
            level = max((depth.get(reg, 0) for reg in op.operands), default=0)
            if op.opcode is OpCode.MUL:
                level += 1
            depth[op.target] = level
        return max((depth.get(reg, 0) for reg in self.outputs), default=0)

    def validate(self) -> "Program":
        """Check every step only reads defined names; returns self."""
        if len(set(self.inputs)) != len(self.inputs):
            raise ProgramError(self.name, "duplicate input register")
        if not self.outputs:
            raise ProgramError(self.name, "no output registers")

        defined = set(self.inputs)
        constants = set(self.constants)
        amounts = self.amount_names
        for step, op in enumerate(self.operations):
            n_regs, n_consts, needs_amount = _ARITY[op.opcode]
            if len(op.operands) != n_regs:
                raise ProgramError(self.name, f"{op.opcode.value} takes {n_regs} register operand(s)", step)
            for reg in op.operands:
                if reg not in defined:
                    raise ProgramError(self.name, f"register '{reg}' read before it is defined", step)
            if n_consts and op.constant not in constants:
                raise ProgramError(self.name, f"unknown constant '{op.constant}'", step)
            if not n_consts and op.constant is not None:
                raise ProgramError(self.name, f"{op.opcode.value} takes no constant", step)
            if needs_amount and op.amount not in amounts:
                raise ProgramError(self.name, f"unknown amount '{op.amount}'", step)
            if not needs_amount and op.amount is not None:
                raise ProgramError(self.name, f"{op.opcode.value} takes no amount", step)
            defined.add(op.target)

        for reg in self.outputs:
            if reg not in defined:
                raise ProgramError(self.name, f"output register '{reg}' is never defined")
        return self


PRINT_ENCRYPTED_PROGRAM = Program(
    name="print-encrypted",
    inputs=("c0", "c1", "c2", "c3"),
    constants=("const1", "const2"),
    amounts=(AmountSpec("shamt", AmountKind.SHIFT), AmountSpec("rotamt", AmountKind.ROTATE)),
    operations=(
        Operation(OpCode.MUL, "c1", ("c1", "c0")),
        Operation(OpCode.ADD_CONST, "c0", ("c0",), constant="const1"),
        Operation(OpCode.MUL_CONST, "c2", ("c2",), constant="const2"),
        Operation(OpCode.COPY, "tmp", ("c1",)),
        Operation(OpCode.SHIFT, "tmp", ("tmp",), amount="shamt"),
        Operation(OpCode.ADD, "c2", ("c2", "tmp")),
        Operation(OpCode.ROTATE, "c2", ("c2",), amount="rotamt"),
        Operation(OpCode.NEGATE, "c1", ("c1",)),
        Operation(OpCode.MUL, "c3", ("c3", "c2")),
        Operation(OpCode.SUB, "c0", ("c0", "c3")),
    ),
    outputs=("c0", "c1", "c2", "c3"),
).validate()

PROGRAMS: Dict[str, Program] = {
    PRINT_ENCRYPTED_PROGRAM.name: PRINT_ENCRYPTED_PROGRAM,
}


def get_program(name: str) -> Program:
    try:
        return PROGRAMS[name]
    except KeyError:
        raise ConfigurationError("PROGRAM", f"unknown program '{name}', available: {sorted(PROGRAMS)}") from None
