"""Grant flows: authorization code and device code.

Both flows share a :class:`GrantExchanger`, which holds the providers and
talks to the token endpoint. A flow instance is request-scoped; whatever
must survive between requests lives in the exchanger's storage providers.
"""

from grantflow.flows.auth_code import AuthorizationCodeFlow, FlowState
from grantflow.flows.device_code import DeviceCodeFlow, DeviceFlowState
from grantflow.flows.exchanger import GrantExchanger

__all__ = [
    "AuthorizationCodeFlow",
    "DeviceCodeFlow",
    "DeviceFlowState",
    "FlowState",
    "GrantExchanger",
]
