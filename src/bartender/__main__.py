from bartender.cli import main

raise SystemExit(main())
