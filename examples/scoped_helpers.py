"""
Example: Context propagation with scoped helpers

Nested helpers pick up the current trace and span automatically, in plain
threads and in asyncio tasks alike.
"""

import asyncio
import os

from tracewire import Tracewire, generation_scope, observe, score_trace, span_scope, trace_scope

client = Tracewire(
    public_key=os.getenv("TRACEWIRE_PUBLIC_KEY", "pk-lf-demo"),
    secret_key=os.getenv("TRACEWIRE_SECRET_KEY", "sk-lf-demo"),
)


@observe(client, name="tokenize")
def tokenize(text):
    return text.split()


@observe(client, as_type="generation", model="gpt-4o-mini")
async def complete(prompt):
    await asyncio.sleep(0.01)
    return f"Echo: {prompt}"


def synchronous_pipeline():
    with trace_scope(client, "sync-pipeline", user_id="user_123") as trace:
        with span_scope(client, "preprocess", input="Hello world") as span:
            span.output = tokenize("Hello world")

        with generation_scope(client, "summarize", model="gpt-4o-mini", input="Hello world") as generation:
            generation.output = "A greeting."
            generation.usage = {"input": 2, "output": 3}

        trace.output = "A greeting."

    score_trace(client, trace.id, "quality", 1.0, comment="looks right")


async def async_pipeline():
    with trace_scope(client, "async-pipeline"):
        answers = await asyncio.gather(complete("first"), complete("second"))
    print(answers)


if __name__ == "__main__":
    synchronous_pipeline()
    asyncio.run(async_pipeline())
    client.shutdown()
