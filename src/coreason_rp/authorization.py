# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_rp

"""
AuthorizationRequestBuilder component for constructing the authorization redirect URL.
"""

from urllib.parse import urlencode

from coreason_rp.config import RelyingPartyConfig

# Config attribute -> query parameter, appended only when set
PASSTHROUGH_PARAMETERS = (
    ("response_mode", "response_mode"),
    ("display", "display"),
    ("prompt", "prompt"),
    ("max_age", "max_age"),
    ("ui_locales", "ui_locales"),
    ("id_token_hint", "id_token_hint"),
    ("login_hint", "login_hint"),
    ("acr_values", "acr_values"),
)


class AuthorizationRequestBuilder:
    """
    Builds the Authorization Code flow request URL.

    Attributes:
        config (RelyingPartyConfig): The Relying Party configuration.
        state (str): The anti-CSRF value sent with the request.
        nonce (str): The replay-protection value sent with the request.
    """

    def __init__(self, config: RelyingPartyConfig, state: str, nonce: str) -> None:
        self.config = config
        self.state = state
        self.nonce = nonce

    def build_params(self) -> dict[str, str]:
        """
        Returns the query parameters of the authorization request.
        """
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": self.config.response_type,
            "scope": self.config.scope,
            "state": self.state,
            "nonce": self.nonce,
        }
        for attr, param in PASSTHROUGH_PARAMETERS:
            value = getattr(self.config, attr)
            if value is None or value == "":
                continue
            # max_age is the only numeric parameter; str() gives its decimal form
            params[param] = str(value)
        return params

    def build_url(self) -> str:
        """
        Returns the authorization endpoint URL with the request encoded in its query.

        Pure function of configuration and flow secrets: repeated calls return the same URL.
        """
        endpoint = self.config.authorization_endpoint
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(self.build_params())}"
