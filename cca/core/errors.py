"""
Error taxonomy for the clearing engine.

Every failure is raised synchronously to the caller; nothing is retried
internally. Errors fall into three families:

- ConfigurationError: the auction could not be constructed
- PreconditionError: the call's inputs or timing are wrong
- StateError: the call is illegal for the current bid or auction state
"""


class AuctionError(Exception):
    """Base class for all clearing engine errors."""


class ConfigurationError(AuctionError):
    """Raised at construction time for invalid parameters."""


class PreconditionError(AuctionError):
    """Raised when a call's inputs or timing are invalid."""


class StateError(AuctionError):
    """Raised when a call is illegal in the current state."""


# =============================================================================
# Configuration Errors
# =============================================================================


class InvalidTotalSupply(ConfigurationError):
    """Total supply must be positive."""


class InvalidFloorPrice(ConfigurationError):
    """Floor price must be positive and tick aligned."""


class InvalidTickSpacing(ConfigurationError):
    """Tick spacing must be positive."""


class InvalidScheduleLength(ConfigurationError):
    """Issuance steps do not cover the auction window."""


class InvalidRateSum(ConfigurationError):
    """Issuance rates do not sum to 100%."""


class InvalidEndBlock(ConfigurationError):
    """End block is not after the start block or does not match the steps."""


class InvalidClaimBlock(ConfigurationError):
    """Claim block precedes the end block."""


class InvalidGraduationThreshold(ConfigurationError):
    """Graduation threshold is outside [0, MPS]."""


class InvalidRecipient(ConfigurationError):
    """Recipient address is malformed."""


class DuplicateAuction(ConfigurationError):
    """An auction already exists for these parameters."""


# =============================================================================
# Precondition Errors
# =============================================================================


class ArithmeticBoundsError(PreconditionError):
    """A fixed-point result fell outside the unsigned 256-bit range."""


class AuctionNotStarted(PreconditionError):
    """Called before the auction's start block."""


class AuctionIsOver(PreconditionError):
    """Bid submitted after the auction's end block."""


class AuctionNotEnded(PreconditionError):
    """Operation requires the auction to have ended."""


class ScheduleExhausted(PreconditionError):
    """Requested a block beyond the last issuance step."""


class PriceNotTickAligned(PreconditionError):
    """Price is not a multiple of the tick spacing."""


class InvalidInsertionHint(PreconditionError):
    """Preceding-tick hint does not bracket the target price."""


class InvalidCheckpointHint(PreconditionError):
    """Checkpoint hint does not bracket the real clearing transition."""


class CheckpointTraversalLimit(PreconditionError):
    """Hint-free checkpoint search exceeded the traversal limit."""


class InvalidAmount(PreconditionError):
    """Bid amount must be positive."""


class InvalidBidPrice(PreconditionError):
    """Bid price is below the floor or above the maximum."""


class BidBelowClearingPrice(PreconditionError):
    """Bid price is below the current clearing price."""


class InsufficientFunds(PreconditionError):
    """Payer cannot cover the requested amount."""


class ValidationHookRejected(PreconditionError):
    """The validation hook rejected the bid."""


class UnknownBid(PreconditionError):
    """No bid exists with the given identifier."""


class ClaimBlockNotReached(PreconditionError):
    """Claim requested before the claim delay elapsed."""


class InvalidAddress(PreconditionError):
    """Address is not a 0x-prefixed 20-byte hex string."""


class StaleBlock(PreconditionError):
    """Block number precedes the latest checkpoint."""


# =============================================================================
# State Errors
# =============================================================================


class AlreadyExited(StateError):
    """Bid has already exited."""


class NotExited(StateError):
    """Bid must exit before it can be claimed."""


class NotClaimable(StateError):
    """Bid has nothing left to claim."""


class CannotExitBid(StateError):
    """Bid is still competing and cannot exit yet."""


class NotGraduated(StateError):
    """Auction did not reach its graduation threshold."""


class AlreadySwept(StateError):
    """Funds or units have already been swept."""


class NotBidOwner(StateError):
    """Bid belongs to a different owner."""
