from pydantic import BaseModel


class ScopeDecision(BaseModel):
    allow: bool
    reason: str = ""
    tier: str = "deny_list"  # deny_list | direct_answer | classifier | fail_open
    latency_ms: float = 0.0
