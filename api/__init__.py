"""Serverless entry points (Vercel)."""
