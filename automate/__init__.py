"""
AutoMate backend package.

Provides a FastAPI gateway that authenticates mobile-app users with Firebase
and proxies vehicle/document/reminder CRUD to the relational store and object
storage, plus the expiration notifier job that runs from the scheduler.
"""
