"""
Provider codecs: authentication, envelopes and state mapping per gateway.
"""
from __future__ import annotations

from .click import ClickProtocol, sign_click_request, verify_click_signature
from .payme import PaymeProtocol, map_to_payme_state, verify_payme_auth
from .paynet import PaynetProtocol, map_to_paynet_state, verify_paynet_auth

__all__ = [
    "ClickProtocol",
    "PaymeProtocol",
    "PaynetProtocol",
    "map_to_payme_state",
    "map_to_paynet_state",
    "sign_click_request",
    "verify_click_signature",
    "verify_payme_auth",
    "verify_paynet_auth",
]
