"""sigrelay — 長時間実行 CLI プロセス向けのクロスプラットフォームなシグナル連携。

主要な公開 API はサブパッケージから提供する:
    sigrelay.signals: シグナルカタログ、プラットフォーム判定、SignalRegistry。
    sigrelay.task: SignalableTask 契約と TaskSignalCoordinator。
"""
