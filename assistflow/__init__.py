"""AssistFlow: assistance-request workflow service."""
