from .orchestrator import LLMOrchestrator, parse_agent_output
from .provider import ApiKeyRotator, DirectLLMProvider, ProxyLLMProvider

__all__ = ["LLMOrchestrator", "parse_agent_output", "ApiKeyRotator", "DirectLLMProvider", "ProxyLLMProvider"]
