"""Gemini generateContent client for image generation."""

import base64
import binascii
from typing import Any, Dict, Optional

import httpx

from .base import BaseProvider
from ..models.schemas import ImageAsset
from ..utils.config import Config
from ..utils.errors import RemoteInvocationError
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_RESULT_MIME_TYPE = "image/png"


class GeminiImageClient(BaseProvider):
    """
    Client for the Gemini image model.
    
    Each call to ``generate_image`` is exactly one attempt. Retrying is the
    orchestrator's job, so every failure is raised as RemoteInvocationError.
    """
    
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash-image-preview",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )
        self.model = model
    
    @classmethod
    def from_config(cls, config: Config, **kwargs) -> "GeminiImageClient":
        return cls(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            base_url=config.gemini_base_url,
            timeout=config.timeout_gemini_seconds,
            **kwargs,
        )
    
    def _get_default_headers(self) -> dict:
        """Get default headers for Gemini requests."""
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }
    
    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"
    
    @staticmethod
    def build_payload(prompt: str, image: ImageAsset) -> Dict[str, Any]:
        """Single-turn request: prompt text followed by the inline source image."""
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": prompt},
                        {
                            "inlineData": {
                                "mimeType": image.mime_type,
                                "data": image.inline_data,
                            }
                        },
                    ],
                }
            ],
        }
    
    @staticmethod
    def extract_image(data: Any) -> Optional[ImageAsset]:
        """
        Pull the generated image out of a generateContent response.
        
        Only the first candidate is considered; the first part carrying
        inline data wins.
        
        Returns:
            ImageAsset or None if the response has no inline image
        """
        if not isinstance(data, dict):
            return None
        
        candidates = data.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            return None
        
        content = candidates[0].get("content") or {}
        for part in content.get("parts") or []:
            if not isinstance(part, dict):
                continue
            inline = part.get("inlineData")
            if isinstance(inline, dict) and inline.get("data"):
                return ImageAsset(
                    mime_type=inline.get("mimeType") or DEFAULT_RESULT_MIME_TYPE,
                    inline_data=inline["data"],
                )
        return None
    
    async def generate_image(self, prompt: str, image: ImageAsset) -> ImageAsset:
        """
        Send one generation request.
        
        Args:
            prompt: Vibe prompt text
            image: Source image
            
        Returns:
            Generated ImageAsset
            
        Raises:
            RemoteInvocationError: On transport error, non-2xx status,
                undecodable body, or a response without valid base64 image data
        """
        self._ensure_client()
        
        payload = self.build_payload(prompt, image)
        
        try:
            response = await self.client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise RemoteInvocationError(f"Request to {self.model} failed: {e}") from e
        
        self._handle_response_errors(response)
        
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteInvocationError(
                "API response was not valid JSON", response.status_code
            ) from e
        
        result = self.extract_image(data)
        if result is None:
            raise RemoteInvocationError("API response did not contain image data")
        
        try:
            base64.b64decode(result.inline_data, validate=True)
        except binascii.Error as e:
            raise RemoteInvocationError("API response contained invalid image data") from e
        
        logger.info(
            "Image generated",
            extra={
                "model": self.model,
                "mime_type": result.mime_type,
                "payload_chars": len(result.inline_data),
            }
        )
        
        return result
    
    def _handle_response_errors(self, response: httpx.Response):
        """Handle HTTP response errors."""
        if response.is_success:
            return
        
        try:
            error_message = response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            error_message = response.text or response.reason_phrase
        
        logger.warning(
            "Generation request rejected",
            extra={
                "model": self.model,
                "status_code": response.status_code,
                "error": error_message,
            }
        )
        
        raise RemoteInvocationError(
            f"API request failed: {error_message}",
            response.status_code,
        )
