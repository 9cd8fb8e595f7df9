"""
AgentFlow PRO — conversation-driven blueprint compiler.

A Designer Agent talks a user through describing an automation, turns
the description into a typed step graph, and compiles the result into
a blueprint that a separate Builder Agent can deploy.

Subpackages:
- designer: conversation state machine, step parser, blueprint generator
- llm: text-generation capability (model routing over DeepSeek / Claude)
- config: settings models and YAML loader
- observability: structured logging
"""

__version__ = "0.3.0"
