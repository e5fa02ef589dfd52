"""層間インターフェース定義。

全ての層はこのパッケージの抽象クラスとデータクラスにのみ依存する。
catalog/ や client/ や sync/ から storefront/store/ や storefront/snapshot_store/ の
実装に直接依存してはならない。
"""
