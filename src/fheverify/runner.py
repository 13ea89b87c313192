"""
Runner: one end-to-end parameter-derivation and dual-path verification run.

    settings -> ParameterSelector -> KeyManager -> draw_inputs
             -> DualPipeline -> Verifier -> RunReport

A single RandomSource seeded from settings.SEED feeds key generation and
input drawing, so a seed reproduces the secret key, the input vectors and
the shift/rotation amounts.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from .config import RunSettings
from .context import Context
from .engine import FHEEngine, create_engine
from .keys import KeyManager
from .parameters import ParameterRequest, ParameterSelector
from .pipeline import DualPipeline, PipelineResult, draw_inputs
from .program import get_program
from .rng import RandomSource
from .verifier import Verifier, VerificationResult

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Homomorphic Computation performed correctly."
FAILURE_MESSAGE = "ERROR"


@dataclass
class RunReport:
    """Outcome of one run, renderable as the line-oriented report."""

    context: Context
    amounts: Dict[str, int]
    result: PipelineResult
    verification: VerificationResult
    seed: int
    engine: str
    timings: Dict[str, float] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.verification.passed

    def lines(self) -> List[str]:
        out = [f"L: {self.context.levels}"]
        out.extend(self.context.describe())
        out.append(f"security={self.context.security_level:g}")
        out.append(f"nslots = {self.context.nslots}")
        for name, value in self.amounts.items():
            out.append(f"{name} = {value}")
        out.append(SUCCESS_MESSAGE if self.passed else FAILURE_MESSAGE)
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "context": self.context.to_dict(),
            "context_hash": self.context.get_hash(),
            "program": self.result.program.name,
            "engine": self.engine,
            "seed": self.seed,
            "amounts": dict(self.amounts),
            "levels": self.result.levels(),
            "verification": self.verification.to_dict(),
            "timings": {k: round(v, 6) for k, v in self.timings.items()},
        }


@contextmanager
def _timed(timings: Dict[str, float], phase: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        timings[phase] = time.perf_counter() - start
        logger.debug(f"Phase {phase} took {timings[phase]:.3f}s")


def run_check(settings: RunSettings, engine: Optional[FHEEngine] = None) -> RunReport:
    """
    Run the full check described by `settings`.

    Args:
        settings: Run configuration
        engine: Engine instance; created from settings.ENGINE when omitted

    Returns:
        RunReport. A slot mismatch is reported, not raised.

    Raises:
        ConfigurationError: Unknown engine or program
        ParameterInfeasibleError: No parameters satisfy the constraints
        PreconditionError: An engine or pipeline precondition failed
    """
    program = get_program(settings.PROGRAM)
    engine = engine or create_engine(settings.ENGINE)
    rng = RandomSource(settings.SEED)
    timings: Dict[str, float] = {}

    with _timed(timings, "parameters"):
        request = ParameterRequest.from_settings(settings, min_depth=program.multiplicative_depth)
        context = ParameterSelector().select(request)

    with _timed(timings, "keygen"):
        keys = KeyManager(engine, rng)
        secret_key = keys.generate_secret_key(context, settings.HAMMING_WEIGHT)
        public_key = keys.derive_public_key(secret_key)
        keys.add_rotation_keys(secret_key)

    with _timed(timings, "compute"):
        inputs = draw_inputs(context, rng, program)
        result = DualPipeline(engine, public_key, program).run(inputs)

    with _timed(timings, "verify"):
        verification = Verifier(engine, secret_key).verify(result)

    report = RunReport(
        context=context,
        amounts=dict(inputs.amounts),
        result=result,
        verification=verification,
        seed=settings.SEED,
        engine=getattr(engine, "name", type(engine).__name__),
        timings=timings,
    )
    logger.info(f"Run finished: passed={report.passed} total={sum(timings.values()):.3f}s")
    return report
