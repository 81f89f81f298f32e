# =============================================================================
# ERROR TAXONOMY
# =============================================================================
"""
Exceptions raised by the persona council core.

Scoring and weighting degrade gracefully for data-quality problems, so most
of these only surface at configuration boundaries:

- ConfigurationError: unknown persona/phase keys under strict parsing,
  invalid configuration values
- ValidationError: caller bugs such as an empty node id
- TransientError: a failing external collaborator (LLM)
- StateError: a collaborator used outside its lifecycle
"""


class DiscussionError(Exception):
    """Base class for all persona council errors"""
    pass


class ConfigurationError(DiscussionError):
    """Raised for unknown lookup keys or invalid configuration"""
    pass


class ValidationError(DiscussionError):
    """Raised when a caller passes structurally invalid input"""
    pass


class TransientError(DiscussionError):
    """Raised when an external collaborator (LLM) fails"""
    pass


class StateError(DiscussionError):
    """Raised when a component is used outside its lifecycle"""
    pass
