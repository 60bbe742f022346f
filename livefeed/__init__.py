"""Realtime change-distribution and notification core.

The package is split the same way as the rest of the platform services:
``domain`` holds plain entities, ``application`` the notification use cases,
``infrastructure`` the transport/registry/dispatcher/buffer machinery and
``interfaces`` the FastAPI surface.
"""
