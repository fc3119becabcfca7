"""Business metrics for the ChatKit stream engine.

Defines OpenTelemetry metrics for:
- Streaming: SSE frame decoding and patch folding
- Blocks: Content blocks projected into messages
- Adapters: Vendor API requests, latency and token refreshes
- Conversations: Lifecycle management
"""

from opentelemetry import metrics

meter = metrics.get_meter("chatkit")

# =============================================================================
# STREAMING METRICS
# =============================================================================

frames_decoded = meter.create_counter(
    name="chatkit.stream.frames_decoded",
    description="Total SSE frames decoded from vendor streams",
    unit="1",
)

frames_dropped = meter.create_counter(
    name="chatkit.stream.frames_dropped",
    description="Total SSE frames dropped (invalid JSON or reducer failure)",
    unit="1",
)

patches_applied = meter.create_counter(
    name="chatkit.stream.patches_applied",
    description="Total patches folded into assistant message trees",
    unit="1",
)

patches_unrouted = meter.create_counter(
    name="chatkit.stream.patches_unrouted",
    description="Total patches with no whitelist entry (tree-only effect)",
    unit="1",
)

# =============================================================================
# BLOCK METRICS
# =============================================================================

blocks_emitted = meter.create_counter(
    name="chatkit.blocks.emitted",
    description="Total content blocks appended or replaced in messages",
    unit="1",
)

# =============================================================================
# ADAPTER METRICS
# =============================================================================

adapter_request_count = meter.create_counter(
    name="chatkit.adapter.request_count",
    description="Total vendor API requests made",
    unit="1",
)

adapter_request_time = meter.create_histogram(
    name="chatkit.adapter.request_time",
    description="Vendor API request latency (until response headers)",
    unit="ms",
)

token_refreshes = meter.create_counter(
    name="chatkit.adapter.token_refreshes",
    description="Total access token refresh attempts",
    unit="1",
)

# =============================================================================
# CONVERSATION METRICS
# =============================================================================

conversations_created = meter.create_counter(
    name="chatkit.conversations.created",
    description="Total conversations created",
    unit="1",
)

conversations_deleted = meter.create_counter(
    name="chatkit.conversations.deleted",
    description="Total conversations deleted",
    unit="1",
)

messages_sent = meter.create_counter(
    name="chatkit.chat.messages_sent",
    description="Total user messages sent to a vendor",
    unit="1",
)
