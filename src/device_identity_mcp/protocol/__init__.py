"""Protocol layer: frame checksum, response classification and the query pipeline states."""

from .framing import Classification, CommandFrame, ResponsePattern, build_frame, classify
from .states import ProtocolState, Outcome, Transition, decide
