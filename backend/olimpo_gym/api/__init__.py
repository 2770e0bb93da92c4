"""
ルーター共通の補助モジュール（例外 → HTTP ステータスの変換など）。
"""
