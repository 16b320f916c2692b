"""
Service modules.

- progress: ProgressStore, SubmissionValidator, HintPolicy, SyncReconciler
- leaderboard: LeaderboardCascade, LeaderboardService
- accounts: AccountDeletionService
- collection: UserCollectionService
- quests: QuestCatalog
- shared: domain exceptions and BaseService
"""
