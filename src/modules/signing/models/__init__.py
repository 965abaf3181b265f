from .signature_asset import CaptureMode, SignatureAsset

__all__ = ['CaptureMode', 'SignatureAsset']
