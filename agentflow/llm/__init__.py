"""
LLM Abstraction Layer — the text-generation capability the designer consumes.

Modules:
- llm_config: Intent definitions, model profiles, routing tables
- router: ModelRouter (DeepSeek / Claude with fallback) and the
  TextGenerator protocol that test fakes implement
"""
