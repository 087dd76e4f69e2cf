"""Cost estimation from token usage.

Prices are USD per million tokens and kept as ``Decimal`` so summing many
small message costs does not accumulate float error.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from .models import Session, TokenUsage
from .types import SessionStatsInfo
from .utils import format_duration

MILLION = Decimal(1_000_000)


@dataclass(frozen=True)
class PricingTier:
    """Per-million-token rates for one model family."""
    name: str
    input_per_mtok: Decimal
    output_per_mtok: Decimal
    cache_read_per_mtok: Decimal
    cache_creation_per_mtok: Decimal


SONNET = PricingTier(
    name='sonnet',
    input_per_mtok=Decimal('3.00'),
    output_per_mtok=Decimal('15.00'),
    cache_read_per_mtok=Decimal('0.30'),
    cache_creation_per_mtok=Decimal('3.75'),
)

OPUS = PricingTier(
    name='opus',
    input_per_mtok=Decimal('15.00'),
    output_per_mtok=Decimal('75.00'),
    cache_read_per_mtok=Decimal('1.50'),
    cache_creation_per_mtok=Decimal('18.75'),
)

HAIKU = PricingTier(
    name='haiku',
    input_per_mtok=Decimal('0.25'),
    output_per_mtok=Decimal('1.25'),
    cache_read_per_mtok=Decimal('0.03'),
    cache_creation_per_mtok=Decimal('0.30'),
)

DEFAULT_PRICING = SONNET


def pricing_for_model(model: str | None) -> PricingTier:
    """Resolve the pricing tier from a model identifier like ``claude-opus-4-1``."""
    if not model:
        return DEFAULT_PRICING
    model = model.lower()
    if 'opus' in model:
        return OPUS
    if 'haiku' in model:
        return HAIKU
    return DEFAULT_PRICING


def calculate_cost(usage: TokenUsage, pricing: PricingTier = DEFAULT_PRICING) -> Decimal:
    """Calculate estimated cost from token usage.

    Args:
        usage: Token counters to price
        pricing: Rates to apply (default: mid tier)

    Returns:
        Estimated cost in dollars, unrounded
    """
    return (
        Decimal(usage.input_tokens) / MILLION * pricing.input_per_mtok
        + Decimal(usage.output_tokens) / MILLION * pricing.output_per_mtok
        + Decimal(usage.cache_read_tokens) / MILLION * pricing.cache_read_per_mtok
        + Decimal(usage.cache_creation_tokens) / MILLION * pricing.cache_creation_per_mtok
    )


def calculate_session_cost(session: Session) -> Decimal:
    """Price every message with the tier of the model that produced it."""
    return sum(
        (calculate_cost(m.usage, pricing_for_model(m.model)) for m in session.messages),
        Decimal(0),
    )


def format_cost(cost: Decimal) -> str:
    """Format a cost as ``$1.2345``."""
    return f"${cost.quantize(Decimal('0.0001')):,}"


@dataclass(frozen=True)
class SessionStats:
    """Computed statistics for a session."""
    total_messages: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    tool_calls: int = 0
    total_usage: TokenUsage = field(default_factory=TokenUsage)
    estimated_cost: Decimal = Decimal(0)
    duration: float | None = None

    @classmethod
    def from_session(cls, session: Session) -> 'SessionStats':
        return cls(
            total_messages=len(session.messages),
            user_messages=session.user_message_count,
            assistant_messages=session.assistant_message_count,
            tool_calls=sum(m.tool_use_count for m in session.messages),
            total_usage=session.total_usage,
            estimated_cost=calculate_session_cost(session),
            duration=session.duration,
        )

    @property
    def formatted_cost(self) -> str:
        return format_cost(self.estimated_cost)

    @property
    def formatted_duration(self) -> str | None:
        return format_duration(self.duration)

    def to_dict(self) -> SessionStatsInfo:
        return {
            'totalMessages': self.total_messages,
            'userMessages': self.user_messages,
            'assistantMessages': self.assistant_messages,
            'toolCalls': self.tool_calls,
            'totalUsage': self.total_usage.to_dict(),
            'totalTokens': self.total_usage.total_tokens,
            'estimatedCost': str(self.estimated_cost),
            'formattedCost': self.formatted_cost,
            'duration': self.duration,
        }
