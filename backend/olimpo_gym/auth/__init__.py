"""
認証まわり（Supabase Auth への委譲）。

- client: アクセストークンからユーザー情報を取得する HTTP クライアント
- dependencies: FastAPI 用の get_current_user / require_admin
"""
