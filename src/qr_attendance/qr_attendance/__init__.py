"""QR attendance package.

Server side: feature modules (events, attendance, users) with a thin Flask
controller layer over service/repository layers backed by MySQL.

Client side: an offline-first scanner (scanning, offline, sync) that writes
every check-in to a local SQLite store first and reconciles with the API.
"""
