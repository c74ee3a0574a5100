import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings
from app.core.errors import BedrockServiceError

logger = logging.getLogger(__name__)


class KnowledgeBase:
    """
    Knowledge Base Bedrock gérée (index de recherche sur les PDF du bucket S3).
    Désactivée quand BEDROCK_KB_ID est vide : le QA passe alors par les extraits locaux.
    """

    def __init__(
        self,
        kb_id: str = "",
        data_source_id: str = "",
        model_arn: str = "",
        region: str = "us-east-1",
        runtime_client: Any = None,
        agent_client: Any = None,
    ):
        self.kb_id = kb_id
        self.data_source_id = data_source_id
        self.model_arn = model_arn
        self._runtime = runtime_client
        self._agent = agent_client
        if self.enabled and self._runtime is None:
            self._runtime = boto3.client("bedrock-agent-runtime", region_name=region)
        if self.can_sync and self._agent is None:
            self._agent = boto3.client("bedrock-agent", region_name=region)

    @classmethod
    def from_settings(cls, settings: Settings) -> "KnowledgeBase":
        return cls(
            kb_id=settings.BEDROCK_KB_ID,
            data_source_id=settings.BEDROCK_DATA_SOURCE_ID,
            model_arn=settings.bedrock_model_arn,
            region=settings.AWS_REGION,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.kb_id)

    @property
    def can_sync(self) -> bool:
        return bool(self.kb_id and self.data_source_id)

    def start_sync(self) -> Optional[str]:
        """
        Lance un job d'ingestion de la source S3. Renvoie l'id du job.
        """
        if not self.can_sync:
            return None
        try:
            resp = self._agent.start_ingestion_job(
                knowledgeBaseId=self.kb_id,
                dataSourceId=self.data_source_id,
            )
        except (BotoCoreError, ClientError) as e:
            raise BedrockServiceError(f"Knowledge base sync failed: {e}") from e
        job_id = resp.get("ingestionJob", {}).get("ingestionJobId")
        logger.info("Knowledge base ingestion started (job=%s)", job_id)
        return job_id

    def ask(self, question: str) -> Dict[str, Any]:
        """
        retrieve_and_generate sur la KB. Renvoie {"answer": str, "sources": [...]}.
        """
        try:
            resp = self._runtime.retrieve_and_generate(
                input={"text": question},
                retrieveAndGenerateConfiguration={
                    "type": "KNOWLEDGE_BASE",
                    "knowledgeBaseConfiguration": {
                        "knowledgeBaseId": self.kb_id,
                        "modelArn": self.model_arn,
                    },
                },
            )
        except (BotoCoreError, ClientError) as e:
            raise BedrockServiceError(f"Knowledge base query failed: {e}") from e

        answer = (resp.get("output") or {}).get("text", "").strip()
        sources: List[Dict[str, Any]] = []
        for citation in resp.get("citations") or []:
            for ref in citation.get("retrievedReferences") or []:
                location = (ref.get("location") or {}).get("s3Location") or {}
                sources.append({
                    "uri": location.get("uri"),
                    "excerpt": ((ref.get("content") or {}).get("text") or "")[:300],
                })
        return {"answer": answer, "sources": sources}
