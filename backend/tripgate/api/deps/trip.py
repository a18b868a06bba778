from tripgate.api.deps.pipeline import AccessPipeline
from tripgate.core.rate_limit import rate_limiter
from tripgate.core.security import session_tokens

# Any active member of the trip named in the token
get_auth_context = (
    AccessPipeline.builder()
    .verify_token(session_tokens)
    .rate_limit(rate_limiter)
    .live_state()
    .build()
)

# Active member whose LIVE role is elevated
require_elevated = (
    AccessPipeline.builder()
    .verify_token(session_tokens)
    .rate_limit(rate_limiter)
    .live_state()
    .require_elevated()
    .build()
)
