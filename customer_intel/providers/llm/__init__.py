"""
LLM Providers

Modules:
    openai: OpenAILLMProvider (LangChain ChatOpenAI)
"""

from customer_intel.providers.llm.openai import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
