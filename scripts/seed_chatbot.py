"""Script to seed a demo chatbot and upload a sample knowledge document."""

import asyncio
import sys
from pathlib import Path
from uuid import uuid4

import asyncpg
import boto3

sys.path.insert(0, str(Path(__file__).parent.parent))

from chatbot_rag.core.config import settings
from chatbot_rag.models.document import StorageRef

TENANT_ID = "demo-tenant"

SAMPLE_DOCUMENT = """Acme Widgets ship within 2 business days. Orders placed before noon
are packed the same day.

Returns are accepted within 30 days of delivery. Items must be unused and in
their original packaging. Refunds are issued to the original payment method.

Support is available Monday to Friday, 9am to 5pm CET, by email at
support@acme.example or through the chat widget on our website.
"""


async def seed_chatbot() -> str:
    """Insert a demo chatbot row and return its id."""
    chatbot_id = str(uuid4())
    conn = await asyncpg.connect(settings.postgres_url)
    try:
        await conn.execute(
            """
            INSERT INTO chatbots (chatbot_id, tenant_id, name, system_prompt, model,
                                  temperature, max_tokens, status)
            VALUES ($1, $2, $3, $4, $5, $6, $7, 'active')
            """,
            chatbot_id,
            TENANT_ID,
            "Acme Support",
            "You are the Acme support assistant. Answer only from the provided context.",
            settings.default_chat_model,
            0.3,
            512,
        )
    finally:
        await conn.close()
    print(f"Created chatbot: {chatbot_id}")
    return chatbot_id


def upload_sample(chatbot_id: str) -> str:
    """Upload the sample document to the bucket and return its key."""
    key = StorageRef.build_key(TENANT_ID, chatbot_id, str(uuid4()), "shipping-and-returns.txt")
    s3 = boto3.client(
        "s3", region_name=settings.s3_region, endpoint_url=settings.s3_endpoint_url)
    s3.put_object(
        Bucket=settings.s3_bucket,
        Key=key,
        Body=SAMPLE_DOCUMENT.encode("utf-8"),
        ContentType="text/plain",
    )
    print(f"Uploaded sample document: {key}")
    return key


if __name__ == "__main__":
    chatbot_id = asyncio.run(seed_chatbot())
    upload_sample(chatbot_id)
