"""ウォレット認証コミュニティ向けのセッションセキュリティ"""
