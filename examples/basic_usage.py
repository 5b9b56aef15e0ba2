"""
Example: Recording an LLM request with the Tracewire client

Demonstrates:
- Creating a trace with spans, a generation, an event and a score
- Updating records once their work has finished
- Flushing and shutting down
- Inspecting dead-lettered events
"""

import os
import time

from tracewire import Tracewire, Usage
from tracewire.types.records import utc_now


def main():
    client = Tracewire(
        public_key=os.getenv("TRACEWIRE_PUBLIC_KEY", "pk-lf-demo"),
        secret_key=os.getenv("TRACEWIRE_SECRET_KEY", "sk-lf-demo"),
        batch_size=20,
        flush_interval=5.0,
        debug=True,
    )

    trace = client.trace(
        name="support-chat",
        user_id="user_123",
        session_id="session_456",
        metadata={"channel": "web"},
        tags=["demo"],
    )
    print(f"Trace created: {trace.id}")

    retrieval = client.span(trace_id=trace.id, name="retrieve-documents", input={"query": "refund policy"})
    time.sleep(0.05)
    retrieval.output = {"documents": ["policy.md#refunds"]}
    retrieval.end_time = utc_now()
    client.update_span(retrieval)

    generation = client.generation(
        trace_id=trace.id,
        parent_observation_id=retrieval.id,
        name="answer",
        model="gpt-4o-mini",
        model_parameters={"temperature": 0.2},
        input=[{"role": "user", "content": "Can I get a refund?"}],
    )
    generation.output = "Yes, within 30 days of purchase."
    generation.usage = Usage(input=42, output=9, total=51, unit="TOKENS")
    generation.end_time = utc_now()
    client.update_generation(generation)

    client.event(trace_id=trace.id, name="cache-miss", metadata={"key": "refund-policy"})
    client.score(trace_id=trace.id, name="helpfulness", value=0.9, comment="Accurate answer")

    print(f"Pending events: {client.pending_count}")
    client.flush()

    client.shutdown()

    failed = client.dead_letters.entries()
    if failed:
        print(f"{len(failed)} event(s) could not be delivered:")
        for entry in failed:
            print(f"   - {entry.event_id}: {entry.error}")
    else:
        print("All events delivered")


if __name__ == "__main__":
    main()
