"""
Durable record store package.

``RecordStore`` is the interface the lifecycle layer depends on; the
in-memory and DynamoDB implementations share its upsert-on-update
semantics.
"""
