# Level Detectors
#
# One module per pattern family, all sharing the pipeline in base.py.

from .base import DetectorContext, DetectionStrategy, run_pipeline
from .fvg import FvgDetector
from .order_block import OrderBlockDetector
from .breaker_block import BreakerBlockDetector, CisdBreakerStrategy, InversionBreakerStrategy
from .rejection_block import RejectionBlockDetector
from .order_flow import OrderFlowDetector
from .cisd import CisdDetector
from .unicorn import UnicornDetector
from .gauntlet import GauntletDetector
from .propulsion_block import PropulsionBlockDetector
from .liquidity import LiquidityTracker

__all__ = [
    "DetectorContext",
    "DetectionStrategy",
    "run_pipeline",
    "FvgDetector",
    "OrderBlockDetector",
    "BreakerBlockDetector",
    "CisdBreakerStrategy",
    "InversionBreakerStrategy",
    "RejectionBlockDetector",
    "OrderFlowDetector",
    "CisdDetector",
    "UnicornDetector",
    "GauntletDetector",
    "PropulsionBlockDetector",
    "LiquidityTracker",
]
