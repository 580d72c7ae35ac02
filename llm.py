# llm.py
import logging
from typing import Iterable, List, Optional, Tuple

import google.generativeai as genai

import config
from errors import UpstreamError

logger = logging.getLogger(__name__)

# -----------------------------
# Prompt
# -----------------------------
ANALYSIS_SYSTEM_PROMPT = """
You are an experienced mental health analyst. Analyze the journal entry you are given and reply with valid JSON only: no markdown, no commentary.

Use exactly this structure, filled with your real analysis:
{
  "sentiment": {
    "score": <number from -1 to 1>,
    "magnitude": <number from 0 to 1>,
    "label": "positive" | "negative" | "neutral" | "mixed"
  },
  "emotions": [
    {"emotion": "<emotion name>", "confidence": <number from 0 to 1>}
  ],
  "keywords": ["<keyword>", "<keyword>", "<keyword>"],
  "wellnessScore": <integer from 0 to 100>,
  "suggestions": [
    "<actionable suggestion>",
    "<actionable suggestion>",
    "<actionable suggestion>"
  ],
  "insights": {
    "patterns": "<patterns you notice>",
    "strengths": "<positive aspects>",
    "concerns": "<areas that need attention>",
    "growth": "<growth opportunities>"
  }
}

Reply with the JSON object and nothing else.
""".strip()

CHAT_SYSTEM_PROMPT = """
You are a compassionate AI wellness companion. Your role is to:

1. Listen actively and offer emotional support
2. Share evidence-based coping strategies
3. Encourage professional help when it is appropriate
4. Stay empathetic, non-judgmental and supportive
5. Ask thoughtful follow-up questions that help the user process their feelings
6. Give practical suggestions for managing stress, anxiety and low mood

Guidelines:
- The user's safety and wellbeing come first
- If the user mentions self-harm or suicide, urge them to contact emergency services or a crisis hotline
- You are not a replacement for therapy or medical care
- Be warm and genuine, keep replies concise but meaningful
- The user's name is {user_name}
""".strip()

ANALYSIS_GENERATION_CONFIG = {"temperature": 0.2, "top_p": 0.8, "max_output_tokens": 800}
CHAT_GENERATION_CONFIG = {"temperature": 0.7, "top_p": 0.9, "max_output_tokens": 500}


def build_analysis_prompt(title: str, content: str, mood: str) -> str:
    return (
        "Please analyze this journal entry:\n\n"
        f'Title: "{title}"\n'
        f'Content: "{content}"\n'
        f'Mood: "{mood}"\n\n'
        "Provide the analysis in the JSON format specified."
    )


def build_chat_contents(history: Iterable[Tuple[str, str]]) -> List[dict]:
    """把 (role, content) 历史转换为 Gemini 的 contents。

    Gemini 的对话必须以 user 开头，所以会话开头的欢迎语不发送。
    """
    contents = []
    for role, text in history:
        if not contents and role != "user":
            continue
        contents.append({"role": "model" if role == "assistant" else "user", "parts": [text]})
    return contents


class GeminiClient:
    """封装 Gemini 调用，所有失败统一转为 UpstreamError。"""

    def __init__(self, api_key: Optional[str], model_name: str, timeout: float):
        self.api_key = api_key
        self.model_name = model_name
        self.timeout = timeout
        if api_key:
            genai.configure(api_key=api_key)

    def _generate(self, system_instruction: str, contents, generation_config: dict) -> str:
        if not self.api_key:
            raise UpstreamError("GEMINI_API_KEY not configured")
        try:
            model = genai.GenerativeModel(
                self.model_name,
                system_instruction=system_instruction,
                generation_config=generation_config,
            )
            resp = model.generate_content(contents, request_options={"timeout": self.timeout})
            text = resp.text
        except Exception as e:
            logger.error("Gemini call failed (%s): %s", type(e).__name__, e)
            raise UpstreamError(f"AI API Error: {e}") from e
        if not text or not text.strip():
            raise UpstreamError("AI API returned an empty response")
        return text

    def analyze_entry(self, title: str, content: str, mood: str) -> str:
        """返回模型的原始文本，由调用方负责解析。"""
        return self._generate(
            ANALYSIS_SYSTEM_PROMPT,
            build_analysis_prompt(title, content, mood),
            ANALYSIS_GENERATION_CONFIG,
        )

    def chat_reply(self, history: Iterable[Tuple[str, str]], user_name: str) -> str:
        contents = build_chat_contents(history)
        if not contents:
            raise UpstreamError("No user message to reply to")
        return self._generate(
            CHAT_SYSTEM_PROMPT.format(user_name=user_name),
            contents,
            CHAT_GENERATION_CONFIG,
        )


_client = GeminiClient(config.GEMINI_API_KEY, config.GEMINI_MODEL, config.LLM_TIMEOUT_SECONDS)


def get_llm() -> GeminiClient:
    """FastAPI 依赖：测试里通过 dependency_overrides 替换。"""
    return _client
