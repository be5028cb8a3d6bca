"""
Imob platform API.

A FastAPI service for multi-tenant real-estate management backed by
Firebase Authentication and Firestore, with a SQL ledger and a Redis queue
for the asynchronous property import pipeline.
"""
