"""
Prompt Templates for the LeadFlow qualification engine.

Manages the qualification chat persona and the structured prompts used by
the scoring and summarization pipeline.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class PromptType(Enum):
    """Types of prompts."""
    LEAD_QUALIFICATION = "lead_qualification"
    CONVERSATION_SCORING = "conversation_scoring"
    CONVERSATION_SUMMARY = "conversation_summary"


class PromptTemplates:
    """
    Manages prompt templates for the qualification assistant.

    The chat persona gathers qualifying information conversationally; the
    scoring template asks for a strict JSON payload the pipeline can parse.
    """

    SYSTEM_PROMPTS = {
        PromptType.LEAD_QUALIFICATION: """You are a professional, friendly lead qualification assistant for LeadFlow AI. Your goal is to:

1. Engage leads in natural conversation
2. Gather key qualifying information: company size, industry, budget indication, timeline, decision authority
3. Assess lead quality and score them appropriately
4. Schedule meetings with qualified leads
5. Provide helpful resources to all leads

Guidelines:
- Be warm and professional, not pushy
- Ask one question at a time
- Show genuine interest
- Use their name if provided
- Offer value in every interaction
- Detect buying signals
- Handle objections gracefully
- If unqualified, provide resources politely

When qualified (score > 70), offer to schedule a meeting.""",

        PromptType.CONVERSATION_SCORING: "You are a B2B lead scoring analyst. Return only valid JSON.",

        PromptType.CONVERSATION_SUMMARY: "You summarize sales conversations for account executives.",
    }

    USER_TEMPLATES = {
        "lead_context": """Lead Context:
- Name: {name}
- Company: {company}
- Industry: {industry}
- Source: {source}
- Current Score: {score}/100

Guidelines for this conversation:
- Gather information about company size, budget, timeline, and decision authority
- If they seem qualified (engaged and have budget/authority), offer to schedule a meeting
- If they seem unqualified, provide helpful resources and politely wrap up""",

        "conversation_scoring": """Analyze this lead qualification conversation and provide a detailed scoring breakdown.

Lead Data:
{lead_data}

Conversation:
{transcript}

Score each category (0-100):
1. Company Fit (25% weight) - Does company size/industry match target?
2. Budget Alignment (20% weight) - Stated or implied budget availability?
3. Timeline (20% weight) - Urgency and decision timeline?
4. Authority (15% weight) - Decision-making power?
5. Need (10% weight) - Pain point severity and fit?
6. Engagement (10% weight) - Response quality and interest?

Respond with JSON only:
{{
  "companyFit": number,
  "budgetAlignment": number,
  "timeline": number,
  "authority": number,
  "need": number,
  "engagement": number,
  "reasoning": "detailed explanation",
  "sentiment": "positive|neutral|negative",
  "buyingSignals": ["signal1", "signal2"],
  "nextSteps": "recommended action"
}}""",

        "conversation_summary": """Summarize this lead qualification conversation in 2-3 sentences. Focus on:
- Key information gathered about the lead
- Their main pain points or needs
- Their level of interest and qualification status

Conversation:
{transcript}""",
    }

    @classmethod
    def get_system_prompt(
        cls,
        prompt_type: PromptType = PromptType.LEAD_QUALIFICATION,
        brand_name: str = "LeadFlow AI",
        custom_instructions: Optional[str] = None
    ) -> str:
        """
        Get system prompt for a given type.

        Args:
            prompt_type: Type of prompt
            brand_name: Brand name to use
            custom_instructions: Additional custom instructions

        Returns:
            Formatted system prompt
        """
        prompt = cls.SYSTEM_PROMPTS.get(prompt_type, cls.SYSTEM_PROMPTS[PromptType.LEAD_QUALIFICATION])
        prompt = prompt.replace("LeadFlow AI", brand_name)

        if custom_instructions:
            prompt += f"\n\n{custom_instructions}"

        return prompt

    @classmethod
    def get_user_prompt(cls, template_name: str, **kwargs) -> str:
        """Get formatted user prompt."""
        template = cls.USER_TEMPLATES[template_name]
        return template.format(**kwargs)

    @staticmethod
    def format_transcript(turns: List[Mapping[str, Any]]) -> str:
        """Render turns as ``role: content`` lines."""
        return "\n".join(f"{t['role']}: {t['content']}" for t in turns)

    @classmethod
    def build_chat_system_prompt(
        cls,
        lead_context: Optional[Dict[str, Any]] = None,
        brand_name: str = "LeadFlow AI"
    ) -> str:
        """Qualification persona with the lead's context appended."""
        context = None
        if lead_context:
            context = cls.get_user_prompt(
                "lead_context",
                name=lead_context.get("name") or "there",
                company=lead_context.get("company") or "your company",
                industry=lead_context.get("industry") or "your industry",
                source=lead_context.get("source") or "Unknown",
                score=lead_context.get("score") or 0,
            )
        return cls.get_system_prompt(PromptType.LEAD_QUALIFICATION, brand_name, context)

    @classmethod
    def build_scoring_prompt(
        cls,
        turns: List[Mapping[str, Any]],
        lead_data: Optional[Dict[str, Any]] = None
    ) -> str:
        lead_json = json.dumps(lead_data, indent=2) if lead_data else "No additional data"
        return cls.get_user_prompt(
            "conversation_scoring",
            lead_data=lead_json,
            transcript=cls.format_transcript(turns),
        )

    @classmethod
    def build_summary_prompt(cls, turns: List[Mapping[str, Any]]) -> str:
        return cls.get_user_prompt(
            "conversation_summary",
            transcript=cls.format_transcript(turns),
        )
