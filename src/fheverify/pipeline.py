"""
Dual Pipeline.

Runs one Program twice over the same random inputs:

    encrypted path: Enc(p0..p3) under the public key, evaluated by the engine
    plaintext path: p0..p3 as SlotVectors, evaluated slot-wise in the clear

Both paths interpret the identical operation records, so any disagreement
after decryption is an engine fault, never a difference in the programs.
Every ciphertext result is normalized at the end; normalization is a no-op
on the plaintext path.

Usage:
    inputs = draw_inputs(context, rng, PRINT_ENCRYPTED_PROGRAM)
    result = DualPipeline(engine, public_key).run(inputs)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from .context import Context
from .engine.base import Ciphertext, FHEEngine
from .errors import ContextMismatchError, ProgramError
from .keys import PublicKey
from .program import PRINT_ENCRYPTED_PROGRAM, AmountKind, OpCode, Operation, Program
from .rng import RandomSource
from .slots import SlotVector

logger = logging.getLogger(__name__)


@dataclass
class PipelineInputs:
    """Random inputs of one run, in draw order."""

    context: Context
    vectors: Dict[str, SlotVector]
    amounts: Dict[str, int]
    constants: Dict[str, SlotVector]

    def amount(self, name: str) -> int:
        return self.amounts[name]


@dataclass
class PipelineResult:
    """Output registers of both paths, keyed by register name in output order."""

    program: Program
    ciphertexts: Dict[str, Ciphertext]
    plaintexts: Dict[str, SlotVector]

    def levels(self) -> Dict[str, int]:
        return {name: ct.level for name, ct in self.ciphertexts.items()}


def draw_amount(rng: RandomSource, kind: AmountKind, nslots: int) -> int:
    """
    Draw a shift or rotation amount.

    Shifts are uniform on [-floor(n/2), floor(n/2)], rotations on
    [-(n-1), n-1].
    """
    if kind is AmountKind.SHIFT:
        half = nslots // 2
        return rng.bounded(2 * half + 1) - half
    return rng.bounded(2 * nslots - 1) - (nslots - 1)


def draw_inputs(context: Context, rng: RandomSource, program: Program = PRINT_ENCRYPTED_PROGRAM) -> PipelineInputs:
    """Draw input vectors, then amounts, then constants, each in declaration order."""
    vectors = {name: SlotVector.random(context, rng) for name in program.inputs}
    amounts = {spec.name: draw_amount(rng, spec.kind, context.nslots) for spec in program.amounts}
    constants = {name: SlotVector.random(context, rng) for name in program.constants}
    logger.debug(f"Drew inputs for '{program.name}': amounts={amounts}")
    return PipelineInputs(context=context, vectors=vectors, amounts=amounts, constants=constants)


class _PlaintextOps:
    """SlotVector arithmetic behind the engine's method names."""

    def add(self, a: SlotVector, b: SlotVector) -> SlotVector:
        return a + b

    def sub(self, a: SlotVector, b: SlotVector) -> SlotVector:
        return a - b

    def multiply(self, a: SlotVector, b: SlotVector) -> SlotVector:
        return a * b

    def negate(self, a: SlotVector) -> SlotVector:
        return -a

    def shift(self, a: SlotVector, amount: int) -> SlotVector:
        return a.shift(amount)

    def rotate(self, a: SlotVector, amount: int) -> SlotVector:
        return a.rotate(amount)

    def normalize(self, a: SlotVector) -> SlotVector:
        return a


def _execute(program: Program, ops: Any, registers: Dict[str, Any], inputs: PipelineInputs) -> Dict[str, Any]:
    # Interprets `program` over `registers` with `ops` (an engine or _PlaintextOps)
    for step, op in enumerate(program.operations):
        registers[op.target] = _apply(program, step, op, ops, registers, inputs)
    return registers


def _apply(program: Program, step: int, op: Operation, ops: Any, registers: Dict[str, Any], inputs: PipelineInputs):
    args = [registers[name] for name in op.operands]
    code = op.opcode
    if code is OpCode.MUL:
        return ops.multiply(args[0], args[1])
    if code is OpCode.ADD:
        return ops.add(args[0], args[1])
    if code is OpCode.SUB:
        return ops.sub(args[0], args[1])
    if code is OpCode.MUL_CONST:
        return ops.multiply(args[0], inputs.constants[op.constant])
    if code is OpCode.ADD_CONST:
        return ops.add(args[0], inputs.constants[op.constant])
    if code is OpCode.COPY:
        return args[0].copy()
    if code is OpCode.SHIFT:
        return ops.shift(args[0], inputs.amount(op.amount))
    if code is OpCode.ROTATE:
        return ops.rotate(args[0], inputs.amount(op.amount))
    if code is OpCode.NEGATE:
        return ops.negate(args[0])
    raise ProgramError(program.name, f"unsupported opcode {code}", step)


class DualPipeline:
    """Executes a Program over ciphertexts and over plaintexts."""

    def __init__(self, engine: FHEEngine, public_key: PublicKey, program: Program = PRINT_ENCRYPTED_PROGRAM):
        self.engine = engine
        self.public_key = public_key
        self.program = program.validate()

    def run(self, inputs: PipelineInputs) -> PipelineResult:
        context = self.public_key.context
        if inputs.context is not context and inputs.context != context:
            raise ContextMismatchError(context.get_hash(), inputs.context.get_hash())
        missing = set(self.program.inputs) - set(inputs.vectors)
        missing |= set(self.program.constants) - set(inputs.constants)
        missing |= self.program.amount_names - set(inputs.amounts)
        if missing:
            raise ProgramError(self.program.name, f"inputs missing for {sorted(missing)}")

        encrypted = {
            name: self.engine.encrypt(self.public_key, inputs.vectors[name]) for name in self.program.inputs
        }
        plain = {name: inputs.vectors[name].copy() for name in self.program.inputs}
        logger.info(f"Running '{self.program.name}' ({len(self.program.operations)} steps) on both paths")

        _execute(self.program, self.engine, encrypted, inputs)
        _execute(self.program, _PlaintextOps(), plain, inputs)

        ciphertexts = {name: self.engine.normalize(encrypted[name]) for name in self.program.outputs}
        plaintexts = {name: plain[name] for name in self.program.outputs}
        for name, ct in ciphertexts.items():
            logger.debug(f"{name}: level={ct.level} noise_budget={ct.noise_budget:.1f}")
        return PipelineResult(program=self.program, ciphertexts=ciphertexts, plaintexts=plaintexts)
