"""
image-for-me: Multi-Backend Image MCP Server

Generates, describes and tags images through several backends:
- OpenAI DALL-E: precise instruction following, logos, GPT-4o descriptions
- Google Gemini: photorealistic scenes, flexible aspect ratios
- Hugging Face: Stable Diffusion generation, BLIP captions, ViT tagging
"""

__version__ = "1.0.0"
