from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

AuthContext = Dict[str, Any]


class FlowAuth(ABC):
    """Abstract base class for flow auth policies"""

    @abstractmethod
    def provide_auth_context(self, auth_header: Optional[str]) -> AuthContext:
        """Build the auth context from the request's Authorization header"""
        pass

    @abstractmethod
    def check_auth_policy(self, auth_context: Optional[AuthContext], input: Any) -> None:
        """Raise if the caller described by auth_context may not run the flow"""
        pass
