import json
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from openai import OpenAI, OpenAIError

from app.core.config import Settings
from app.core.errors import BedrockServiceError, LLMServiceError
from app.utils.text_utils import extract_json_block

logger = logging.getLogger(__name__)

PROVIDERS = {"bedrock", "openai", "local"}


class LLMService:
    """
    Accès au modèle de fondation.
    - bedrock : API Converse de bedrock-runtime (défaut)
    - openai  : chat.completions
    - local   : aucun modèle, complete() renvoie None et l'appelant utilise son fallback

    En cas d'erreur distante : si fallback_local, on log et on renvoie None,
    sinon on lève BedrockServiceError / LLMServiceError (502).
    """

    def __init__(
        self,
        provider: str = "local",
        *,
        region: str = "us-east-1",
        model_id: str = "",
        openai_model: str = "gpt-4o-mini",
        openai_api_key: str = "",
        max_tokens: int = 1024,
        fallback_local: bool = True,
        client: Any = None,
    ):
        provider = (provider or "local").strip().lower()
        if provider not in PROVIDERS:
            logger.warning("Unknown LLM_PROVIDER '%s', using local fallback.", provider)
            provider = "local"
        self.provider = provider
        self.model_id = model_id
        self.openai_model = openai_model
        self.max_tokens = max_tokens
        self.fallback_local = fallback_local
        self._client = client

        if self._client is None and provider == "bedrock":
            self._client = boto3.client("bedrock-runtime", region_name=region)
        elif self._client is None and provider == "openai":
            self._client = OpenAI(api_key=openai_api_key or None)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMService":
        return cls(
            settings.LLM_PROVIDER,
            region=settings.AWS_REGION,
            model_id=settings.BEDROCK_MODEL_ID,
            openai_model=settings.OPENAI_MODEL,
            openai_api_key=settings.OPENAI_API_KEY,
            max_tokens=settings.LLM_MAX_TOKENS,
            fallback_local=settings.LLM_FALLBACK_LOCAL,
        )

    @property
    def is_local(self) -> bool:
        return self.provider == "local"

    # ---------- public API ----------

    def complete(self, system: str, prompt: str, max_tokens: Optional[int] = None) -> Optional[str]:
        if self.is_local:
            return None
        try:
            if self.provider == "bedrock":
                return self._converse(system, prompt, max_tokens or self.max_tokens)
            return self._openai(system, prompt, max_tokens or self.max_tokens)
        except LLMServiceError as e:
            if self.fallback_local:
                logger.warning("%s error: %s. Falling back to local mode.", self.provider, e.detail)
                return None
            raise

    def complete_json(self, system: str, prompt: str, max_tokens: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """
        Comme complete() mais attend un objet JSON en sortie.
        """
        text = self.complete(system, prompt, max_tokens)
        if text is None:
            return None
        try:
            data = json.loads(extract_json_block(text))
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value is not an object")
            return data
        except ValueError as e:
            if self.fallback_local:
                logger.warning("Invalid JSON from %s model: %s. Falling back to local mode.", self.provider, e)
                return None
            raise LLMServiceError(f"Model returned invalid JSON: {e}") from e

    # ---------- providers ----------

    def _converse(self, system: str, prompt: str, max_tokens: int) -> str:
        try:
            resp = self._client.converse(
                modelId=self.model_id,
                system=[{"text": system}],
                messages=[{"role": "user", "content": [{"text": prompt}]}],
                inferenceConfig={"maxTokens": max_tokens, "temperature": 0.2},
            )
            content = resp["output"]["message"]["content"]
            text = "".join(block.get("text", "") for block in content).strip()
        except (BotoCoreError, ClientError) as e:
            raise BedrockServiceError(f"Bedrock converse failed: {e}") from e
        except (KeyError, TypeError) as e:
            raise BedrockServiceError(f"Unexpected Bedrock response: {e}") from e
        if not text:
            raise BedrockServiceError("Bedrock returned an empty response")
        return text

    def _openai(self, system: str, prompt: str, max_tokens: int) -> str:
        try:
            comp = self._client.chat.completions.create(
                model=self.openai_model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_tokens,
                temperature=0.2,
            )
            text = (comp.choices[0].message.content or "").strip()
        except OpenAIError as e:
            raise LLMServiceError(f"OpenAI error: {e}") from e
        if not text:
            raise LLMServiceError("OpenAI returned an empty response")
        return text
