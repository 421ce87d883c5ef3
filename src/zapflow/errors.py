"""
ZapFlow error types — every failure carries a stable code for the console UI.
"""

from typing import Any, Optional


class ZapFlowError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class UnresolvableIdentityError(ZapFlowError):
    """No sendable phone number could be derived for a conversation."""

    def __init__(self, conversation_id: str, details: Optional[dict[str, Any]] = None):
        super().__init__(
            "unresolvable_identity",
            f"Could not find a valid phone number for conversation {conversation_id}",
            {"conversation_id": conversation_id, **(details or {})},
        )


class GatewayError(ZapFlowError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__("http_error", message, {"status_code": status_code} if status_code else None)
        self.status_code = status_code


class ConfigError(ZapFlowError):
    def __init__(self, message: str):
        super().__init__("config_error", message)


class SendError(ZapFlowError):
    def __init__(self, message: str, code: str = "send_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class DeliveryStateError(ZapFlowError):
    def __init__(self, current: str, target: str):
        super().__init__(
            "delivery_state_error",
            f"Illegal delivery transition {current} -> {target}",
            {"current": current, "target": target},
        )
