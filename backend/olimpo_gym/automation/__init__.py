"""
定期実行ジョブ用モジュール群。

- jobs: 期限切れ判定・自動更新・期限間近リマインダーの実行関数と CLI
- scheduler: APScheduler によるプロセス内スケジューラ（ENABLE_SCHEDULER=true の時のみ）
"""
