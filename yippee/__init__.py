"""yippee - AUR 助手：分层构建与安装"""

__version__ = "12.0.4"
