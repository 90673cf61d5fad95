"""Single-shot image generation request helper."""

from __future__ import annotations

import logging

import httpx

from .exceptions import ImageRequestError
from .notices import Notifier

LOGGER = logging.getLogger(__name__)

INVALID_PROMPT_MESSAGE = "Please provide a valid prompt for image generation."


class ImageGenerator:
    """Posts a prompt to the image endpoint and keeps the last good image.

    Failures never clear ``image``; they set ``error`` and raise a notice.
    """

    def __init__(
        self,
        base_url: str,
        image_path: str = "/api/generate-image",
        notifier: Notifier | None = None,
        timeout: float = 120,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}{image_path}"
        self.notifier = notifier or Notifier()
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.image: str | None = None
        self.is_loading = False
        self.error: str | None = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def generate(self, prompt: str) -> str | None:
        """Request an image for ``prompt``.

        Returns:
            The new image string, or None on any failure.
        """
        if not prompt or not prompt.strip():
            self.notifier.report(ImageRequestError(INVALID_PROMPT_MESSAGE))
            return None

        self.is_loading = True
        self.error = None
        try:
            response = await self._client.post(
                self.url,
                json={"messages": [{"role": "user", "content": prompt}]},
            )
            data = response.json()
            image = data.get("image") if isinstance(data, dict) else None
            if response.status_code == 200 and isinstance(image, str) and image:
                self.image = image
                LOGGER.info(
                    "image.generated",
                    extra={"event": "image.generated", "size": len(image)},
                )
                return image

            LOGGER.warning(
                "image.request.rejected",
                extra={"event": "image.request.rejected", "status": response.status_code},
            )
            self.error = "Image generation failed."
            self.notifier.report(ImageRequestError("Failed to generate image."))
            return None
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning(
                "image.request.failed",
                extra={"event": "image.request.failed", "reason": str(exc)},
            )
            self.error = "Error generating image. Please try again."
            self.notifier.report(ImageRequestError("Something went wrong."))
            return None
        finally:
            self.is_loading = False
