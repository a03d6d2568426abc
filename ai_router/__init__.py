"""
AI Model Router: multi-provider LLM routing with budget guardrails

Routes AI requests (business plans, market analysis, sentiment analysis and
general prompts) across OpenAI, Claude and Gemini models. Each request is
checked against daily/monthly budgets, served from a content-addressed cache
when possible, and otherwise sent down an ordered fallback chain of models
chosen per task type, priority and budget utilization.
"""

__version__ = "0.1.0"
