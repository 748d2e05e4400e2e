"""
AWS Bedrock LLM Provider.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class BedrockProvider:
    """
    AWS Bedrock LLM provider.

    Serves Anthropic Claude models via Bedrock. boto3 has no native async
    client, so calls run in a worker thread.
    """

    DEFAULT_MODEL = "anthropic.claude-3-5-sonnet-20241022-v2:0"

    def __init__(
        self,
        model_id: str = DEFAULT_MODEL,
        region: str = "us-east-1",
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.7
    ):
        """
        Initialize Bedrock provider.

        Args:
            model_id: Bedrock model ID
            region: AWS region
            aws_access_key_id: Explicit AWS key (defaults to the boto3 chain)
            aws_secret_access_key: Explicit AWS secret
            max_tokens: Maximum tokens for response
            temperature: Default generation temperature
        """
        self.model_id = model_id
        self.region = region
        self.max_tokens = max_tokens
        self.temperature = temperature

        self._client = boto3.client(
            "bedrock-runtime",
            region_name=region,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
        )
        logger.info(f"Bedrock provider initialized: {model_id} in {region}")

    def _build_body(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str],
        max_tokens: Optional[int],
        temperature: Optional[float]
    ) -> str:
        # Claude only accepts user/assistant turns; system goes top-level
        formatted_messages = [
            {
                "role": msg["role"],
                "content": [{"type": "text", "text": msg["content"]}]
            }
            for msg in messages
            if msg["role"] in ("user", "assistant")
        ]
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        if system:
            system_parts.insert(0, system)

        body: Dict[str, Any] = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
            "messages": formatted_messages,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)

        return json.dumps(body)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> str:
        """
        Generate a full response for a message list.

        Args:
            messages: List of messages with role and content
            system: System prompt
            max_tokens: Override max tokens
            temperature: Override temperature

        Returns:
            Generated response
        """
        try:
            response = await asyncio.to_thread(
                self._client.invoke_model,
                modelId=self.model_id,
                body=self._build_body(messages, system, max_tokens, temperature),
                contentType="application/json",
                accept="application/json",
            )

            response_body = json.loads(response["body"].read())

            if "content" in response_body and response_body["content"]:
                return response_body["content"][0]["text"].strip()

            logger.warning("Empty response from Bedrock")
            return ""

        except ClientError as e:
            logger.error(f"Bedrock API error: {e}")
            raise
        except Exception as e:
            logger.error(f"Bedrock generation failed: {e}")
            raise

    async def stream(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> AsyncIterator[str]:
        """Stream response text deltas from Bedrock."""
        try:
            response = await asyncio.to_thread(
                self._client.invoke_model_with_response_stream,
                modelId=self.model_id,
                body=self._build_body(messages, system, max_tokens, temperature),
                contentType="application/json",
                accept="application/json",
            )
            events = iter(response["body"])

            while True:
                event = await asyncio.to_thread(next, events, None)
                if event is None:
                    break
                chunk = event.get("chunk")
                if not chunk:
                    continue
                payload = json.loads(chunk["bytes"])
                if payload.get("type") == "content_block_delta":
                    text = payload.get("delta", {}).get("text")
                    if text:
                        yield text

        except ClientError as e:
            logger.error(f"Bedrock streaming API error: {e}")
            raise
        except Exception as e:
            logger.error(f"Bedrock streaming failed: {e}")
            raise
