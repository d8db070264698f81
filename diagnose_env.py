"""
Diagnostic script to check .env loading and Gemini configuration.
Run this to troubleshoot environment variable issues before starting the server.
"""

import os
import sys
from pathlib import Path

KEY_NAMES = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")

print("\n" + "=" * 70)
print("🔍 ENVIRONMENT DIAGNOSTICS")
print("=" * 70 + "\n")

# 1. Check Python version
print(f"1. Python Version: {sys.version}")
print()

# 2. Check .env file
env_path = Path(__file__).parent / ".env"
print(f"2. .env File Location: {env_path}")
print(f"   Exists: {env_path.exists()}")

if env_path.exists():
    print(f"   Size: {env_path.stat().st_size} bytes")
    print("\n   Content preview:")
    with open(env_path, "r") as f:
        for i, line in enumerate(f.readlines()[:10], 1):
            line = line.rstrip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, value = line.split("=", 1)
                # Mask secrets
                if "KEY" in key or "TOKEN" in key:
                    value = value[:6] + "..." if len(value) > 6 else value
                print(f"   Line {i}: {key}={value}")
            else:
                print(f"   Line {i}: {line}")
print()

# 3. Load .env through python-dotenv
print("3. Loading .env File:")
try:
    from dotenv import load_dotenv

    result = load_dotenv(dotenv_path=env_path, override=True, verbose=True)
    print(f"   Result: {result}")
except ImportError:
    print("   ✗ python-dotenv NOT installed")
    print("   Run: pip install python-dotenv")
print()

# 4. Check API key variables
print("4. Gemini API Key:")
key_name = next((name for name in KEY_NAMES if os.environ.get(name)), None)
api_key = os.environ.get(key_name) if key_name else None
if api_key:
    print(f"   ✓ {key_name} is set")
    print(f"   Value: {api_key[:6]}...")
    print(f"   Length: {len(api_key)} characters")
    if api_key.startswith("AIza"):
        print("   ✓ Format looks correct (starts with AIza)")
    else:
        print("   ⚠ WARNING: Google API keys usually start with 'AIza'")
else:
    print(f"   ✗ None of {', '.join(KEY_NAMES)} is set")
print()

# 5. Check google-genai and Pillow
print("5. Packages:")
genai_ok = True
try:
    from google import genai

    print(f"   ✓ google-genai installed (version: {getattr(genai, '__version__', 'unknown')})")
    if api_key:
        try:
            genai.Client(api_key=api_key)
            print("   ✓ Client initialized successfully")
        except Exception as e:
            print(f"   ✗ Client initialization failed: {e}")
    else:
        print("   ⚠ Cannot test client (no key)")
except ImportError:
    genai_ok = False
    print("   ✗ google-genai NOT installed")

pillow_ok = True
try:
    import PIL

    print(f"   ✓ Pillow installed (version: {PIL.__version__})")
except ImportError:
    pillow_ok = False
    print("   ✗ Pillow NOT installed")
print()

# 6. Summary
print("=" * 70)
print("📋 SUMMARY")
print("=" * 70)

issues = []
if not env_path.exists():
    issues.append("❌ .env file not found")
if not api_key:
    issues.append("❌ Gemini API key not set")
if not genai_ok:
    issues.append("❌ google-genai package not installed")
if not pillow_ok:
    issues.append("❌ Pillow package not installed")

if not issues:
    print("✅ All checks passed! Configuration looks good.")
    print("\nYou can now start the server:")
    print("  uvicorn canvas_expander.main:app --reload")
else:
    print("Issues found:\n")
    for issue in issues:
        print(f"  {issue}")
    print("\nRecommended actions:")
    if not api_key:
        print("  1. Create .env with: GEMINI_API_KEY=your_key_here")
        print("     (keys are issued at https://aistudio.google.com/apikey)")
    if not genai_ok or not pillow_ok:
        print("  2. Install dependencies: pip install -e .")

print("=" * 70 + "\n")
