from .scanner import DocumentScanner

__all__ = ["DocumentScanner"]
